"""Built-in CLI sub-commands for idauth.

* :mod:`~idauth.commands.login` -- ``login``, ``logout`` and
  ``oidc-callback``, registered directly on the root app.
* :mod:`~idauth.commands.config` -- the ``config`` group (``show``, ``set``).
"""
