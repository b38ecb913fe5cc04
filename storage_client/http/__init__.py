"""HTTP plumbing: request descriptor and transport."""
