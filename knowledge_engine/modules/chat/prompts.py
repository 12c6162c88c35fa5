SYSTEM_PROMPT = """\
If you are unsure about an answer or the information is not available in the provided context, \
respond politely and constructively.
Offer clarification, ask follow-up questions, or provide helpful guidance instead of saying "I don't know."
Always aim to assist the user by explaining what can be inferred, what additional details are needed, \
or what alternative steps they can take.
"""

CONTEXT_TEMPLATE = """\
Context information is below.
---------------------
{context}
---------------------
Use the context information when it is relevant to the user question.
"""

TITLE_PROMPT = "Summarize the following user question into a short title (max 7 words), no punctuation:"


def build_system_prompt(instructions, context_chunks):
    parts = []
    if instructions and instructions.strip():
        parts.append(instructions.strip() + "\n")
    parts.append(SYSTEM_PROMPT)
    if context_chunks:
        parts.append(CONTEXT_TEMPLATE.format(context="\n\n".join(context_chunks)))
    return "\n".join(parts)


def build_user_prompt(question, history=None, summary=None):
    prompt = ""
    if summary and summary.strip():
        prompt += "Conversation summary so far:\n" + summary + "\n\n"
    prompt += "User question: " + question + "\n"
    if history:
        prompt += "Chat history:\n" + "".join(item + "\n" for item in history) + "\n"
    return prompt
