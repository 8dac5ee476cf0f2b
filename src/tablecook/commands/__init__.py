"""Command line tools provided by TableCook."""
