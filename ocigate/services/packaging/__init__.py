"""Layer assembly, image composition and the packaging builder."""
