"""Backend for Drawnix "Save to Server" / "Open from Server".

Route handlers in server.py stay thin:
- config: one immutable Settings object built from the environment
- security: path containment + bearer token check
- store: write / list / read of .drawnix documents under the storage root
- publisher: build the frontend once at startup, before serving

Security note:
When UPLOAD_TOKEN is unset the API is open to anyone who can reach it.
Never log the token or return absolute filesystem paths in responses.
"""
