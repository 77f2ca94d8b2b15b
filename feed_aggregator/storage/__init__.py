"""Video and interaction stores."""
