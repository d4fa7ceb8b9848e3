"""Tracking state layer.

Per-route tracking state is only ever written through
:class:`~routewatch.state.store.TrackingStore`; everything else reads
frozen snapshots.
"""
