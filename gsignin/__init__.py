"""Sign in with Google against a Supabase Auth (GoTrue) identity backend."""
