"""Result file output."""
