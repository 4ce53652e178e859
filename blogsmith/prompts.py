"""
Prompt templates for the generation stages.

All prompt constants are centralized here for easier iteration. Templates are
filled with str.format(); literal braces in JSON examples are doubled.
"""

NEUTRAL_STYLE_GUIDE = (
    "Clear, informative and friendly. Short paragraphs, concrete examples, "
    "plain language, and descriptive subheadings."
)

JSON_ONLY_SYSTEM_PROMPT = "You must respond with valid JSON only. No additional text or markdown formatting."


# =============================================================================
# STYLE ANALYSIS
# =============================================================================

STYLE_ANALYSIS_PROMPT = """### TASK
Analyze the writing style, tone, and structure of this reference material:

<reference_material>
{reference_material}
</reference_material>

Provide a brief description of their common writing patterns, tone, and structural elements.
This description will be used as a style guide for a new article."""


# =============================================================================
# STRUCTURE
# =============================================================================

STRUCTURE_PROMPT = """### ROLE
You are an SEO content strategist planning a long-form blog post.

### TASK
Create a detailed blog post structure about "{topic}".

The blog post should follow this structure:
1. Main H1 headline
2. Introduction section (about 100 words), marked with type "h1"
3. 4-5 main sections, each with:
   - an H2 subheadline (type "h2")
   - 3-4 key points outlining the section's content

### KEYWORDS
Primary keywords: {primary_keywords}
Secondary keywords: {secondary_keywords}
If a keyword list is empty, suggest 3-5 keywords for it yourself.

### STYLE GUIDE
{style_guide}

### OUTPUT FORMAT
Respond with JSON exactly like this:
{{
  "headline": "Your H1 SEO-optimized headline here",
  "primaryKeywords": ["keyword1", "keyword2", "keyword3"],
  "secondaryKeywords": ["keyword4", "keyword5", "keyword6"],
  "outline": [
    {{"title": "Introduction", "type": "h1", "keyPoints": ["...", "..."]}},
    {{"title": "First Main Section", "type": "h2", "keyPoints": ["...", "..."]}}
  ]
}}

Requirements:
- All headlines must be descriptive and SEO-friendly
- Exactly one entry has type "h1" and it is the introduction
- Ensure all text is properly escaped for JSON"""


# =============================================================================
# INTRODUCTION
# =============================================================================

INTRODUCTION_PROMPT = """Write an engaging introduction for a blog post about "{topic}".

Headline: {headline}
Keywords to incorporate: {keywords}

Requirements:
- About 100 words
- Hook the reader from the first sentence
- Set up the main topics that will be covered: {section_titles}
- Match this style guide: {style_guide}

Format your response as valid JSON:
{{
  "introduction": "Your introduction text here..."
}}"""


# =============================================================================
# SECTIONS
# =============================================================================

SECTION_PROMPT = """Write section {position} of {total} for a blog post about "{topic}".

Use this section from the outline as a guide:
{section_json}

Requirements for the section:
- Generate ONLY this section (not the introduction)
- The section's "title" must match this headline: "{title}"
- The "content" must be 400-500 words of markdown
- Follow these key points: {key_points}
- Naturally incorporate these keywords: {keywords}
- Adhere to this style guide: {style_guide}

Return your answer strictly in the following JSON format with no additional text:
{{
  "sections": [
    {{"title": "{title}", "content": "Section content..."}}
  ]
}}"""


# =============================================================================
# POLISH
# =============================================================================

POLISH_PROMPT = """Here's a draft article that needs polishing:

{article}

Instructions:
1. Improve the flow between sections
2. Add smooth transitions between paragraphs
3. Ensure consistent tone and style throughout
4. Keep all headlines exactly as they are
5. Maintain all key information and examples
6. Keep the markdown formatting intact
7. Keep these keywords present: {keywords}

Return the polished article in this JSON format:
{{
  "full_article": "Your polished markdown article here"
}}"""


# =============================================================================
# IMAGES
# =============================================================================

IMAGE_QUERIES_PROMPT = """Generate {count} specific image search queries for a stock photo site that would be relevant for a blog post about "{topic}".
Related keywords: {keywords}

The queries should be short, descriptive and concrete to get high-quality, relevant photos.

Format your response as JSON:
{{
  "queries": ["query 1", "query 2", "query 3"]
}}"""


# =============================================================================
# BATCH ENRICHMENT
# =============================================================================

ENRICH_ARTICLE_PROMPT = """### ROLE
You are an experienced content writer improving a published blog article.

### REFERENCE MATERIAL
<reference_material>
{reference_material}
</reference_material>

### ORIGINAL ARTICLE
<article>
{article}
</article>

### INSTRUCTIONS
1. Keep the markdown formatting and the existing headings; add no new headings
2. Weave relevant facts, examples and quotes from the reference material into the existing sections
3. Only use numbers and statistics that appear in the reference material, and link their source with [anchor](URL)
4. Never invent figures or estimates
5. Keep the original voice, and keep the text coherent and natural

Return only the improved article, without explanations."""


# =============================================================================
# CONTRACT RETRY
# =============================================================================

CONTRACT_RETRY_SUFFIX = """

IMPORTANT: Your previous response was invalid. Please fix the following problem and try again:

{error}

Respond with valid JSON that matches the expected format."""
