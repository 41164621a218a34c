"""linref: aliases, layered config and an entity cache for the Linear API."""
