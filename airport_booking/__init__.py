"""Seat inventory, booking and workforce service for an airport operator."""
