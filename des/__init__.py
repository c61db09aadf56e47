"""Discrete-event scheduling: virtual clock plus time-ordered callbacks."""
