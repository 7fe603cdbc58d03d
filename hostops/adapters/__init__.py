"""Command channels: the only way hostops talks to a remote host."""
