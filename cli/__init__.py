"""CLI package for the Modbus live monitor."""
