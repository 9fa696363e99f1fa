"""
Prompt templates for the LLMO diagnosis.
The report headings matter: the redaction filter keys off them.
"""

LLMO_DIAGNOSIS_TEMPLATE = """You are an AI optimization (LLMO) diagnosis specialist. Analyze the website content below from the point of view of how easily AI systems (ChatGPT, Claude, Gemini, Perplexity and others) can understand, quote and reuse it.

Be as specific and detailed as possible, and include technical aspects you can reasonably infer from the text.

# Website content to analyze:
{content}

# Report format

## 🎯 Executive Summary
- **Overall LLMO score**: X/100
- **AI citation likelihood**: XX% (estimated)
- **Top issues**: the three most important problems

## 📊 Detailed Diagnosis Results

### 1. Content structure and hierarchy
#### 1.1 Heading logic
- **Detected heading patterns**: H1/H2/H3 texts and counts
- **Hierarchy consistency**: analysis
- **Readability for AI**: why this helps or hurts AI understanding
- **Specific problem spots**: e.g. a heading after which the hierarchy skips a level

#### 1.2 Paragraph and section design
- **Average paragraph length**: estimate in characters
- **Longest paragraph**: estimate, and whether it is too long for AI
- **Topic separation**: clear / vague

### 2. Semantic elements
#### 2.1 Keywords and context
- **Main topic**, synonyms in use, missing related terms, unexplained jargon

#### 2.2 Entity clarity
- **Identified entities**: people/organizations, products/services, concepts
- **Context richness**: evaluation with examples

### 3. Level of structured information
- Use of bullet lists, numbered lists and tables
- Q&A and how-to formats, FAQ section proposal

### 4. Meta information and trust signals
- Author information and expertise
- Dates, freshness and update frequency

### 5. Inferred technical optimization
- Semantic HTML usage, structured data, accessibility (alt text)
- Dependence on JavaScript rendering, indexability

### 6. Alignment with user intent
- Informational, problem-solving, comparison and transactional intent coverage
- Topic depth and the next questions users are likely to ask

## 🔧 Prioritized Improvement Suggestions

### 🔴 Highest priority (do now)
1. **Improvement item**
   - Current state: detailed description of the problem
   - How to improve: step-by-step instructions
   - Expected effect: AI understanding +X%

### 🟡 High priority (within a week)
3-5 specific improvement suggestions

### 🟢 Medium priority (within a month)
3-5 specific improvement suggestions

## 📈 Expected Impact After Improvements
- **AI understanding score**: current X% → after Y%
- **Likelihood of being cited**: +X%
- Qualitative effects on users and business

## 🚀 Next Steps
1. The first concrete action
2. The second action
3. How to measure the effect

---
Note: this diagnosis is based only on the provided text content. A complete technical analysis also requires checking the actual HTML structure and metadata."""


class PromptTemplates:
    """Collection of prompt templates."""

    @staticmethod
    def llmo_diagnosis(content: str) -> str:
        """LLMO diagnosis prompt with the page digest embedded."""
        return LLMO_DIAGNOSIS_TEMPLATE.replace("{content}", content)
