from typing import Dict, List, Any
import re


class ContextRanker:
    """Ranks context elements by relevance to query"""
        
    async def rank(self, query: str, items: List[Dict[str, Any]], field: str = "content") -> List[Dict[str, Any]]:
        """Return copies of ``items`` with a ``score``, best first"""
        
        scored = []
        for item in items:
            result = dict(item)
            result["score"] = await self.calculate_relevance(query, str(item.get(field, "")))
            scored.append(result)
            
        # Stable sort keeps insertion order among equal scores
        scored.sort(key=lambda item: item["score"], reverse=True)
        return scored
        
    async def calculate_relevance(self, query: str, content: str) -> float:
        """Calculate relevance score between query and content"""
        
        query_lower = query.lower()
        content_lower = content.lower()
        
        # Simple keyword overlap scoring
        query_words = set(re.findall(r'\w+', query_lower))
        content_words = set(re.findall(r'\w+', content_lower))
        
        if not query_words:
            return 0.0
            
        overlap = len(query_words.intersection(content_words))
        score = overlap / len(query_words)
        
        # Boost score if query appears as substring
        if query_lower in content_lower:
            score += 0.3
            
        return min(score, 1.0)  # Cap at 1.0
