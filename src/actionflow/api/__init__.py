"""
HTTP surface for actionflow (FastAPI).

Build the app with :func:`actionflow.api.app.create_app`; serve it with
``actionflow serve``.
"""
