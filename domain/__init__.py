"""Describes the recipe share domain. Centres around generating a recipe.

What is actually ours?

- Turning a handful of optional preferences into a prompt.
- Pulling a recipe out of whatever text the model sends back.
- Everything else (users, storage, who may edit what) lives in the hosted
  backend. We only talk to it through `RecipeBackend`.

Both the model and the backend are collaborators passed in explicitly so
they can be faked.
"""
