"""Maintenance lifecycle service for a distributed mining-hardware fleet."""
