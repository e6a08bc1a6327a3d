"""Finbot - conversational finance assistant backend."""
