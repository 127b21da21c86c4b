"""pytest plugin for MultiDb."""
