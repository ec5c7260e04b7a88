"""MCP stdio server exposing the research pipeline as tools."""
