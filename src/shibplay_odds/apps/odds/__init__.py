"""Command-line tools for inspecting and watching round odds."""
