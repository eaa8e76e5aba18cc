"""Server-rendered web client and its session gate."""
