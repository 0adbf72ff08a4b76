"""Keybinding resolution: chords, actions, contexts and the effective keymap."""
