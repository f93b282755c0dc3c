import openai


async def quick_chat(
    msg: str,
    *,
    model: str,
    openai_client: openai.AsyncClient | None = None,
) -> str:
    """One user message in, the text of one completion out."""
    openai_client = openai.AsyncClient() if openai_client is None else openai_client
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": msg}],
    )
    return resp.choices[0].message.content or ""
