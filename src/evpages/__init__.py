"""evpages — locality data pipeline for EV charger installation pages."""
