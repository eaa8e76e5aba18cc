"""Pet food storefront authentication service."""
