"""KvK stats bot: Discord front-end for the kingdom stats backend."""
