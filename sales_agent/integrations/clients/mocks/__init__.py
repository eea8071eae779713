"""
Mock integration clients.

In-process fakes for messaging, payments, document rendering/storage and the
dialogue model. Nothing here touches the network; each fake records what it
was asked to do so tests can assert on it.

Selected by sales_agent/chatbot/dependencies.py when INTEGRATIONS_MODE=mock,
which is the default when credentials are missing.
"""
