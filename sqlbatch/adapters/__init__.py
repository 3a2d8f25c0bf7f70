"""Database driver adapters. Each adapter needs its optional extra installed."""
