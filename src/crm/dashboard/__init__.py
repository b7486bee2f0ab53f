"""Dashboard summary aggregation over deals, contacts and activities."""
