"""Engine features: paging, browsing, neighbor navigation, search, random picks, media."""
