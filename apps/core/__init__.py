"""Shared import plumbing: context, errors, handler pipeline, health."""
