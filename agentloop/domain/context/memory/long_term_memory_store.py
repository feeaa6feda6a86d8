from typing import Dict, List, Any, Optional
import asyncio
from datetime import datetime

from ..context_ranker import ContextRanker


class LongTermMemoryStore:
    """In-process store of durable facts, searched by keyword relevance"""
    
    def __init__(self, ranker: Optional[ContextRanker] = None, max_entries: int = 1000):
        self.entries: List[Dict[str, Any]] = []
        self.ranker = ranker or ContextRanker()
        self.max_entries = max_entries
        self._next_id = 0
        self._lock = asyncio.Lock()
        
    async def add(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        """Add content to the store"""
        
        async with self._lock:
            entry_id = f"mem_{self._next_id}"
            self._next_id += 1
            
            self.entries.append({
                "id": entry_id,
                "content": content,
                "metadata": metadata or {},
                "timestamp": datetime.utcnow().isoformat(),
            })
            
            # Oldest entries are dropped first
            if len(self.entries) > self.max_entries:
                self.entries = self.entries[-self.max_entries:]
                
            return entry_id
            
    async def search(self, query: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Search for relevant memories"""
        
        async with self._lock:
            entries = list(self.entries)
            
        ranked = await self.ranker.rank(query, entries)
        return [entry for entry in ranked if entry["score"] > 0][:limit]
        
    async def clear(self):
        async with self._lock:
            self.entries.clear()
