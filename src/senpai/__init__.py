"""Senpai API - match lifecycle backend for student skill sharing."""
