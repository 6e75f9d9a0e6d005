ANALYSIS_SYSTEM_MESSAGE = "You are an AI performance analyst for a math quiz application called Math Quest."

ACTIVITY_RECORD_TEMPLATE = """- Question: {question}
  Difficulty: {difficulty}
  Type: {type}
  User Answer: {user_answer}
  Correct Answer: {correct_answer}
  Correct: {is_correct}
  Timestamp: {timestamp}"""

DESIRED_FOCUS_LINE = "The user wants to focus on: {desired_focus}"

ANALYSIS_TEMPLATE = """
Analyze the provided user activity history to identify strengths, weaknesses, and provide actionable suggestions for improvement.

User Activity History:
{activity_history}
{desired_focus}

Based on this history:
1. Summarize the user's overall performance trends (e.g. accuracy by type, difficulty).
2. Identify specific strengths (e.g. "Strong in Easy Algebra", "Good accuracy in Geometry").
3. Identify specific weaknesses (e.g. "Struggles with Hard Calculus", "Low accuracy in Trigonometry").
4. Provide concrete, actionable suggestions for improvement. Consider the identified weaknesses{focus_hint}. Suggestions could include practicing specific types/difficulties, reviewing concepts, or trying different strategies. Keep suggestions concise (1-2 sentences each).
5. Based on the analysis, suggest a type and difficulty for the next question that would be most beneficial. If the user has a clear weakness, suggest practicing that area at an appropriate difficulty. If they are performing well, suggest a slightly harder question or a different type.
"""
