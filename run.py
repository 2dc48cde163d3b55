"""
RUN SCRIPT - Start the Globalrate AI server
===========================================

USAGE:
  python run.py

  Then call the API at http://localhost:8000 (docs at /docs).

NOTE:
  Set GROQ_API_KEY in .env before running. CONTEXT_PROVIDER picks the lookup
  (static, duckduckgo, tavily, wikipedia); tavily also needs TAVILY_API_KEY.
"""

import os

import uvicorn


if __name__ == "__main__":
    uvicorn.run(
        "globalrate.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
    )
