"""SQLite storage models for alert rules, events, mutes, subscriptions, datasources, teams and roles."""

__version__ = "0.1.0"