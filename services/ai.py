from flask import current_app


class AIUnavailable(Exception):
    pass


def build_task_prompt(task, message):
    return f"""
You are a helpful AI assistant for the task: "{task.title}".
Task description: {task.description or 'No description provided'}
Task priority: {task.priority}
Task category: {task.category}

You should provide helpful, specific advice related to this task.
Be concise but thorough in your responses.
If the user asks something unrelated to the task, gently guide them back to the task.

User message: {message}

Respond directly without any preamble like "As an AI assistant" or "I'd be happy to help".
"""


def generate(prompt):
    api_key = current_app.config.get('GOOGLE_API_KEY')
    if not api_key:
        raise AIUnavailable('The AI service is not configured. Set GOOGLE_API_KEY.')

    import google.generativeai as genai

    genai.configure(api_key=api_key)
    model = genai.GenerativeModel(current_app.config['GEMINI_MODEL'])
    response = model.generate_content(
        prompt,
        generation_config={'temperature': 0.7, 'max_output_tokens': 1024},
        request_options={'timeout': current_app.config['AI_TIMEOUT_SECONDS']},
    )
    return response.text
