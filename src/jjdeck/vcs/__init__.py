"""Everything that talks to jj: the command gateway, its log, parsers and client."""
