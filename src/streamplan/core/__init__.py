"""Core planner infrastructure: configuration, logging, graphs and planning."""
