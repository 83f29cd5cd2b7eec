"""Reconciliation core: fetcher, resolvers, storage, store, reconciler."""
