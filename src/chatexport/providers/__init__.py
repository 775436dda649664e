"""Pluggable providers: upload targets and browser navigators."""
