"""Application services orchestrating the store and the engines."""
