"""Settings, chain specifications and input file loading"""
