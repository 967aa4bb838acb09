"""DocLens - credits, Stripe billing and document analysis relay."""
