"""Application state: tabs, selection, popups and the transition engine."""
