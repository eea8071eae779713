"""
Real HTTP integration clients.

These clients talk to the live collaborators:
- WhatsApp Cloud API (messaging)
- Stripe (hosted checkout + signed webhooks)
- PDF.co (HTML to PDF) and Cloudinary (permanent storage)

Must implement the same interfaces as the mock clients. Selection of mock vs
real clients happens in sales_agent/chatbot/dependencies.py only.
"""
