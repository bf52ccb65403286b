"""Bitbucket → Discord notifier."""
