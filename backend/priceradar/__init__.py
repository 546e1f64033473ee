"""Price Radar backend: scheduled marketplace monitors."""
