# ABOUTME: kindlecat - a read-only catalog of the Kindle for PC library cache.
# ABOUTME: Subpackages: metadata, formats, db, core, cli.
